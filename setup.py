"""
Setup script for the coffee-agent project.

Allows development installation with `pip install -e .`
"""

from setuptools import setup, find_packages

setup(
    name="coffee-agent",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "python-dotenv>=1.0",
        "langchain-core>=0.3",
        "langchain-openai>=0.2",
        "firecrawl-py>=1.0",
        "httpx>=0.27",
        "tenacity>=8.2",
        "fastapi>=0.110",
        "uvicorn>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
)
