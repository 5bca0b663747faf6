from setuptools import setup

setup(
    name="wieldymarkup",
    version="0.1.0",
    author="Vail Gold",
    description="Indentation based HTML shorthand that compiles to html",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    packages=['wieldymarkup'],
    python_requires=">=3.7",
    install_requires=[
        "watchdog",
        "pyyaml",
    ],
    extras_require={
        "test": ["pytest"],
    },
)
