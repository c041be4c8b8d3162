from setuptools import setup, find_packages

setup(
    name="chainlang",
    version="0.1.0",
    description="Chain expression compiler and async execution engine",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["chain"],
    install_requires=[
        "pydantic>=2.0",
        "networkx>=3.0",
        "loguru>=0.7",
        "opentelemetry-api",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "chain=chain:main",
        ],
    },
    python_requires=">=3.9",
)
