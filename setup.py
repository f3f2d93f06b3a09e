from setuptools import setup, find_packages

setup(
    name="cpas",
    version="0.1.0",
    packages=find_packages(include=["cpas", "cpas.*"]),
    package_data={"cpas.reporting": ["templates/*.j2"]},
    python_requires=">=3.11",
    install_requires=[
        # Core dependencies
        "pydantic>=2",
        "PyYAML",

        # Exports
        "pandas",
        "openpyxl",

        # Reporting
        "markdown",
        "jinja2",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "cpas=cpas.cli:main",
        ],
    },
)
