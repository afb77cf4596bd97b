"""
location: setup.py


"""
from setuptools import setup, find_packages

setup(
    name="kvcache",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "redis>=6.0.0",
        "pydantic>=2.11.3",
        "prometheus-client>=0.20.0",
        "opentelemetry-api>=1.24.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "fakeredis>=2.30.0",
            "opentelemetry-sdk>=1.24.0",
            "mypy>=1.0.0",
            "black>=23.0.0",
            "isort>=5.0.0",
            "invoke>=2.2.0",
        ]
    },
)
