"""
Setup script for learnfeed.

learnfeed turns long-form learning material into a paced feed. It serves
three stages:

1. Text Chunking - propositions grouped into topic-coherent chunks
2. Video Segmentation - transcripts cut into 4-15 minute segments
3. Feed Assembly - content interleaved with quizzes, facts and synthesis

The 'learnfeed' command is the entry point.
"""

from setuptools import find_packages, setup

setup(
    name="learnfeed",
    version="1.0.0",
    description="Semantic segmentation and learning feed assembly for text and video",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Right Learning",
    url="https://github.com/rightlearning/learnfeed",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # AI / Embeddings
        "google-generativeai>=0.8.0",
        "numpy>=1.24.0",
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
        "local-ai": [
            "sentence-transformers>=2.2.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "learnfeed=learnfeed.cli:main",
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
    keywords="learning segmentation embeddings feed education cognitive",
)
