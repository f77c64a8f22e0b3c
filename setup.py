"""
Setup script pour Context Pruning Gateway.
"""
from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="context-pruning-gateway",
    version="1.0.0",
    author="Context Gateway Team",
    description="Proxy LLM qui remplace les tool results obsolètes par un marqueur court",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Tools",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.100.0",
        "pydantic>=2.0",
        "uvicorn[standard]>=0.23.0",
        "httpx>=0.24.0",
        "websockets>=11.0",
        "tiktoken>=0.5.0",
        "aiofiles>=23.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=23.0.0",
            "ruff>=0.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "context-gateway=context_gateway.__main__:main",
        ],
    },
)
