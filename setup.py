from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="nlsh",
    version="0.1.0",
    description="Natural language shell: turn plain-language requests into shell commands with Gemini or z.ai",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX",
        "Environment :: Console",
        "Topic :: Utilities",
    ],
    python_requires=">=3.8",
    install_requires=[
        "google-generativeai>=0.5.0",
        "google-api-core>=2.11.0",
        "requests>=2.28.0",
        "rich>=12.0.0",
        "toml>=0.10.2",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "nlsh=nlsh.main:main",
        ],
    },
)
