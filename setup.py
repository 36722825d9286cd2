"""Setup configuration for Assured Jobs"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="assured-jobs",
    version="0.1.0",
    author="Assured Jobs Team",
    description="Crash recovery for background-job workers: heartbeats, job tracking and orphan re-enqueueing over Redis",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["assured_jobs", "assured_jobs.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: System :: Distributed Computing",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "fakeredis>=2.20",
        ],
    },
    include_package_data=True,
    entry_points={
        "console_scripts": [
            "assured-jobs=assured_jobs.cli.main:main",
        ],
    },
)
