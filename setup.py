#!/usr/bin/env python3
"""Setup script for electrolux2mqtt package."""
from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="electrolux2mqtt",
    version="1.0.0",
    author="",
    author_email="",
    description="Bridge Electrolux appliances to MQTT and Home Assistant",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Home Automation",
    ],
    keywords="electrolux mqtt home-assistant air-conditioner home-automation",
    install_requires=[
        "paho-mqtt>=2.0.0",
        "pyyaml>=6.0",
        "httpx>=0.24",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "pytest-httpx>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "electrolux2mqtt=electrolux2mqtt.__main__:main",
        ],
    },
    python_requires=">=3.10",
)
