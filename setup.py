"""Setup script for the Google Ads upload connector."""

from setuptools import setup, find_packages

setup(
    name="ads-upload-connector",
    version="0.1.0",
    description="Managed, rate-limited batch uploads of marketing records to Google Ads",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.109.0",
        "uvicorn[standard]>=0.27.0",
        "google-ads>=25.0.0",
        "google-cloud-storage>=2.14.0",
        "redis>=5.0.1",
        "tenacity>=8.2.3",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "python-dotenv>=1.0.0",
        "cryptography>=41.0.7",
        "pyjwt[crypto]>=2.8.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "httpx>=0.26.0",
        ],
    },
)
