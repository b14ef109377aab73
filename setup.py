"""Setup file for WeekShop package."""
from setuptools import setup, find_packages

setup(
    name="weekshop",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages("src"),
    install_requires=[
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "SQLAlchemy>=2.0",
        "loguru>=0.7",
        "tenacity>=8.2",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.1.1",
            "pytest-asyncio>=0.23",
        ],
    },
    python_requires=">=3.11",
)
