from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="livingdoc",
    version="1.0.0",
    author="Your Name",
    author_email="your.email@example.com",
    description="Living documentation core: Gherkin parsing and test result correlation",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/yourusername/livingdoc",
    packages=find_packages(exclude=["tests", "tests.*", "examples", "examples.*", "docs"]),
    py_modules=["run"],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Testing",
        "Topic :: Software Development :: Documentation",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
    install_requires=[
        "pyyaml>=6.0.1",
        "click>=8.1.7",
        "colorama>=0.4.6",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": ["pytest>=7.4.3"],
        "dev": [
            "pytest>=7.4.3",
            "pytest-cov>=4.1.0",
            "black>=23.10.0",
            "flake8>=6.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "livingdoc=run:main",
        ],
    },
    include_package_data=True,
    package_data={
        "livingdoc.parser": ["*.yaml"],
    },
    keywords="bdd gherkin living-documentation nunit xunit junit trx cucumber reqnroll specflow",
    license="MIT",
)
