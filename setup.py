"""Setup script for the SP1 TEE client."""

from setuptools import find_packages, setup

setup(
    name="sp1-tee",
    version="0.1.0",
    description="Client library for SP1 TEE integrity proofs",
    author="SP1 TEE Team",
    packages=find_packages(include=["sp1_tee", "sp1_tee.*"]),
    python_requires=">=3.10",
    install_requires=[
        "httpx>=0.24.0",
        "pydantic>=2.11.0",
        "eth-keys>=0.4.0",
        "eth-utils>=2.0.0",
        "eth-hash[pycryptodome]>=0.5.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
