from setuptools import setup, find_packages

setup(
    name="nephrocare",
    version="1.0.0",
    packages=find_packages(include=["nephrocare", "nephrocare.*"]),
    python_requires=">=3.9",
    install_requires=[
        "fastapi",
        "uvicorn",
        "pydantic>=2",
        "python-dotenv",
        "sqlalchemy[asyncio]>=2.0",
        "aiosqlite",
        "asyncpg",
        "redis>=4.2",
        "python-jose",
        "anyio",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
        ],
    },
)
