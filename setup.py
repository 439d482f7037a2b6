"""
Setup configuration for Task Context Store package
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="task-context-store",
    version="1.0.0",
    author="Your Name",
    author_email="your.email@example.com",
    description="Versioned, auditable context storage for task execution records",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/yourusername/task-context-store",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
    python_requires=">=3.9",
    install_requires=[
        "redis>=4.5",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "fakeredis[lua]>=2.20",
        ],
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "fakeredis[lua]>=2.20",
            "black>=23.0",
            "flake8>=6.0",
            "mypy>=1.0",
        ],
    },
)
