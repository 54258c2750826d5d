"""Setup configuration for bitable-mirror-sync"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="bitable-mirror-sync",
    version="1.0.0",
    author="geeklubcn",
    author_email="",
    description="将飞书/Lark 多维表格单向镜像同步到关系型数据库表",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["bitable_mirror_sync.tests"]),
    py_modules=["main"],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Database",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=[
        "lark-oapi>=1.2.0",
        "loguru>=0.7.0",
        "requests>=2.28.0",
        "PyMySQL>=1.0.0",
        "DBUtils>=3.0.0",
        "redis>=4.5.0",
        "python-dateutil>=2.8.0",
        "python-dotenv>=1.0.0",
        "fastapi>=0.100.0",
        "pydantic>=2.0.0",
        "uvicorn>=0.22.0",
        "tzdata; platform_system == 'Windows'",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "httpx>=0.24.0",
            "black>=23.0.0",
            "isort>=5.12.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "bitable-mirror-sync=main:main",
        ],
    },
)
