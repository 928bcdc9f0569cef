# setup.py
from setuptools import setup, find_namespace_packages

setup(
    name="scribewatch",
    version="1.0.0",
    description="Background service that watches a folder and transcribes new audio files",
    author="Enrique Paredes",
    author_email="eparedesbalen@gmail.com",
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src", include=["scribewatch*"]),
    python_requires=">=3.9",
    install_requires=[
        "watchdog>=3.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        'console_scripts': [
            'scribewatch=scribewatch.main:main',
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
