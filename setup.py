"""Setup configuration for CI-SNAPSHOT."""

from setuptools import find_packages, setup

setup(
    name="ci-snapshot",
    version="0.1.0",
    description="CI API snapshot extractor — obfuscated static mocks of pipelines, builds and releases",
    python_requires=">=3.12",
    packages=find_packages(where="src", include=["ci_snapshot*"]),
    package_dir={"": "src"},
    install_requires=[
        "httpx>=0.27.0",
        "httpx-sse>=0.4.0",
        "pydantic>=2.6.0",
        "pydantic-settings>=2.1.0",
        "opentelemetry-api>=1.24.0",
        "opentelemetry-sdk>=1.24.0",
        "opentelemetry-exporter-otlp-proto-http>=1.24.0",
    ],
    entry_points={
        "console_scripts": [
            "ci-snapshot=ci_snapshot.cli:cli_entry",
        ],
    },
    extras_require={
        "dev": [
            "pytest>=8.0.0",
            "pytest-asyncio>=0.23.0",
            "pytest-mock>=3.12.0",
            "respx>=0.21.0",
        ],
    },
)
