import setuptools

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="exposure-backend-client",
    version="0.0.1",
    author="EPFL",
    description="Client-side protocol for exposure notification key retrieval and submission",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(exclude=["tests", "examples", "utils"]),
    package_data={"exposure_client": ["covidshield.proto"]},
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
    install_requires=["pycryptodomex", "pynacl", "httpx", "protobuf>=4.22"],
    extras_require={
        "dev": ["black", "flake8", "pre-commit"],
        "test": ["pytest", "pytest-asyncio"],
    },
)
