from setuptools import setup, find_packages

setup(
    name="differ",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pyyaml",
        # Structural index — tree-sitter core + one grammar per language
        "tree-sitter>=0.25",
        "tree-sitter-python",
        "tree-sitter-javascript",
        "tree-sitter-typescript",
        "tree-sitter-java",
        "tree-sitter-rust",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "differ=differ.cli:main",
        ],
    },
    author="Uday Kanth",
    description="Locate and apply named code edits with tree-sitter.",
)
