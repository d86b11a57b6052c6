"""
Setup script for practice-scheduler.

Practice Scheduler is the adaptive engine behind skills-practice sessions.
It serves three roles:

1. Scheduler - Decides which subtopic and difficulty to practice next
2. Diversity Guard - Screens generated questions for near-duplicates
3. Run Store - Persists, migrates, exports and imports practice runs

The 'practice' command is the terminal front end.
"""

from setuptools import find_namespace_packages, setup

setup(
    name="practice-scheduler",
    version="3.0.0",
    description="Adaptive practice scheduler with content-diversity screening",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Practice Scheduler Contributors",
    packages=find_namespace_packages(include=["src", "src.*"]),
    py_modules=["config"],
    package_data={"src.curriculum": ["data/*.json"]},
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
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
            "practice=src.cli.main:main",
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
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning practice adaptive scheduler cli education",
)
