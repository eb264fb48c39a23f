from setuptools import find_packages, setup

setup(
    name="ringsignal",
    version="0.1.0",
    description="Synchronous signals and slots, safe against re-entrant emission",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.10",
    install_requires=[
        "typing-extensions",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
