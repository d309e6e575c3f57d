"""
Setup script for puzzlegraph.

puzzlegraph is the dependency graph engine behind a puzzle catalog:

1. Catalog - Puzzles with difficulty, points and soft deletion
2. Prerequisite DAG - Required and advisory edges, kept acyclic on every write
3. Completion Ledger - One record per user and puzzle, unlock checks, progress

The 'puzzlegraph' command exposes every operation from the terminal.
"""

from setuptools import find_packages, setup

setup(
    name="puzzlegraph",
    version="1.0.0",
    description="Prerequisite graph, unlock checks and progress tracking for puzzle catalogs",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["puzzlegraph", "puzzlegraph.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        "psycopg2-binary>=2.9.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "puzzlegraph=puzzlegraph.cli.main:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Games/Entertainment :: Puzzle Games",
    ],
    keywords="puzzles prerequisites dag progress education",
)
