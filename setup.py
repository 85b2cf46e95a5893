# setup.py
from setuptools import setup, find_packages

setup(
    name="clinic-finance",
    version="0.1.0",
    description="Income and expense dashboard for a medical office, with an offline fallback and AI insights",
    packages=find_packages(include=["clinic_finance", "clinic_finance.*", "webapp"]),
    package_data={"webapp": ["templates/*.html"]},
    python_requires=">=3.10",
    install_requires=[
        "click>=8.0",
        "pyyaml>=5.3",
        "python-dotenv>=0.19",
        "huggingface_hub>=0.20",
        "fastapi>=0.110",
        "jinja2>=3.0",
        "python-multipart>=0.0.7",
        "uvicorn>=0.23",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "httpx>=0.24",
        ],
    },
    entry_points={
        "console_scripts": [
            "clinic-finance=clinic_finance.cli:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
