from setuptools import setup, find_packages

setup(
    name="shardio",
    version="0.1.0",
    description="Sharded, codec-aware container files on local disk and S3",
    author="Dariusz Duszyński",
    author_email="dariusz@datavision.pl",

    package_dir={"": "src"},
    packages=find_packages(where="src"),

    install_requires=[
        "boto3>=1.26.0",
        "pydantic>=2.0.0",
        "click>=8.1.0",
        "pyyaml>=6.0",
        "prometheus-client>=0.16.0",
        "structlog>=23.1.0",
        "fastavro>=1.9.0",
        "zstandard>=0.21.0",
        "lz4>=4.3.0",
    ],

    extras_require={
        "dev": [
            "pytest>=7.3.0",
            "pytest-cov>=4.0.0",
            "moto[s3]>=5.0.0",
            "black>=23.3.0",
            "mypy>=1.3.0",
            "ruff>=0.0.270",
        ],
        "test": [
            "pytest>=7.3.0",
            "pytest-cov>=4.0.0",
            "moto[s3]>=5.0.0",
        ],
        "snappy": ["python-snappy>=0.6.1"],
    },

    entry_points={
        "console_scripts": [
            "shardio=shardio.cli.main:cli",
        ],
    },

    python_requires=">=3.11",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.11",
    ],
)
