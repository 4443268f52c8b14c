# setup.py
from setuptools import setup, find_packages

setup(
    name="moneysaver",
    version="0.1.0",
    description="Local expense tracking with monthly per-category summaries",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "click>=8.0",
        "pyyaml>=5.3",
        "python-dotenv>=0.19",
        "anyio>=3.0",
        "mcp>=1.2,<2",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "moneysaver=expense_tracker.cli:main",
            "moneysaver-mcp=expense_tracker.mcp_server:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
