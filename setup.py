from setuptools import setup, find_namespace_packages

setup(
    name="branchpipe",
    version="0.1.0",
    description="Run ordinary iterator chains over the normal values of a stream of results, "
                "putting divergent values back in order.",
    python_requires=">=3.11",
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src", include=["branchpipe", "branchpipe.*"]),
    install_requires=[
        "pydantic>=2.0",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
)
