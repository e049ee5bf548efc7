from setuptools import setup, find_packages


setup(
    name="gitindex",
    version="0.1",
    packages=find_packages(include=["gitindex", "gitindex.*"]),
    description="A streaming, forward-only reader and verifier for git index files.",
    author="vercingetorx",
    python_requires=">=3.8",
    install_requires=[
        "pycryptodomex>=3.23.0",
    ],
    entry_points={
        "console_scripts": [
            "gitindex=gitindex.cli:main",
        ]
    },
)
