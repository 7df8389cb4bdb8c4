import setuptools

with open("musli/.version") as f:
    version = f.read().strip()

setuptools.setup(
    name="musli",
    version=version,
    python_requires=">=3.11.0",
    license="Apache-2.0",
    entry_points={"console_scripts": ["musli = musli.__main__:main"]},
    packages=["musli"],
    package_data={"musli": ["*.sql", ".version"]},
    install_requires=[
        "appdirs",
        "click",
        "mutagen",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
