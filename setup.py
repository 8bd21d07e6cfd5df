from setuptools import setup, find_packages

setup(
    name="pyaudiobars",
    version="0.1.0",
    description="Audio-reactive spectrum bar dynamics for offline video rendering",
    packages=find_packages(include=["pyaudiobars", "pyaudiobars.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.21.0",
        "scipy>=1.7.0",
        "pydantic>=2.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    zip_safe=False,
)
