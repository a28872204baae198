import os

from setuptools import find_packages, setup

setup(
    name="tally-schema",
    version="0.1.0",
    packages=find_packages(include=["tally", "tally.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.10.6,<3.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.23",
            "hypothesis>=6.0",
        ],
    },
    author="Tally Contributors",
    description="Score-based schema validation with union resolution and deferred builds",
    long_description=open("README.md").read() if os.path.exists("README.md") else "",
    long_description_content_type="text/markdown",
)
