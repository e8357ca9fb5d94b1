from setuptools import find_packages, setup

setup(
    name="releasemirror",
    version="0.1.0",
    description="Mirror GitHub release assets into a local directory tree",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "requests",
        "urllib3",
        "PyYAML",
        "rich",
        "platformdirs",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-mock",
        ],
    },
    entry_points={
        "console_scripts": [
            "releasemirror=releasemirror.cli:main",
        ],
    },
)
