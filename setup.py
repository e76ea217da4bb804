"""Package setup for site_mirror."""

from setuptools import setup, find_packages

setup(
    name="site-mirror",
    version="1.0.0",
    description="Depth-limited website mirroring into ZIP archives, run as concurrent jobs",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "requests>=2.31.0",
        "beautifulsoup4>=4.12.0",
        "lxml>=5.0.0",
        "urllib3>=2.0.0",
        "playwright>=1.40.0",
        "tqdm>=4.66.0",
        "colorlog>=6.8.0",
    ],
    entry_points={
        "console_scripts": [
            "site-mirror=site_mirror.cli:main",
        ],
    },
)
