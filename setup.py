from setuptools import setup, find_packages

setup(
    name="pke-vsphere-control-plane",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2",
        "typer",
        "rich",
        "PyYAML",
        "SQLAlchemy>=2",
        "cryptography",
        "temporalio",
        "kubernetes",
        "pyvmomi",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "pke-vsphere=pke_vsphere.cli:main",
        ],
    },
)
