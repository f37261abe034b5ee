from setuptools import setup, find_packages

setup(
    name="dead-drop",
    version="2.0.0",
    description="Password-gated, self-destructing files hidden in images. AES-256-GCM + LSB steganography.",
    long_description=open("README.md").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Ava Shakil",
    author_email="ava@artifactvirtual.com",
    url="https://github.com/Artifact-Virtual/dead-drop",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["cli"],
    python_requires=">=3.9",
    install_requires=[
        "cryptography>=41.0.0",
        "Pillow>=10.0.0",
        "numpy>=1.24",
        "aiohttp>=3.9",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "dead-drop=cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Security :: Cryptography",
        "Topic :: Multimedia :: Graphics",
    ],
    license="MIT",
)
