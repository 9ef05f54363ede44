from setuptools import setup, find_packages

setup(
    name="bsd-ci",
    version="0.1.0",
    description="A continuous integration runner building GitHub projects in FreeBSD pot jails",
    author="The bsd-ci contributors",
    packages=find_packages(exclude=["tests", "tests.*"]),
    license="AGPL-3.0-only",
    python_requires=">=3.11",
    install_requires=[
        "Jinja2",
        "toml",
        "pydantic>=2",
        "PyYAML",
        "requests",
        "humanize",
    ],
    extras_require={
        "test": ["pytest"],
    },
    include_package_data=True,
    package_data={"bsdci": ["templates/*"]},
    entry_points={
        "console_scripts": [
            "bsd-ci = bsdci.cli:main",
        ]
    }
)
