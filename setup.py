import os.path

import setuptools

# Get the long description from README.
with open("README.rst", "r") as fh:
    long_description = fh.read()

# Get package metadata from '__about__.py' file.
about = {}
base_dir = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(base_dir, "morph", "__about__.py"), "r") as fh:
    exec(fh.read(), about)

setuptools.setup(
    name=about["__title__"],
    version=about["__version__"],
    description=about["__summary__"],
    long_description=long_description,
    long_description_content_type="text/x-rst",
    author=about["__author__"],
    author_email=about["__email__"],
    url=about["__url__"],
    license=about["__license__"],
    # Exclude tests from built/installed package.
    packages=setuptools.find_packages(
        exclude=["tests", "tests.*", "*.tests", "*.tests.*"]
    ),
    python_requires=">=3.11",
    install_requires=[
        "Django>=4.2",
        "djangorestframework>=3.15.1",
        "drf-spectacular>=0.27.2",
    ],
    extras_require={
        "docs": [
            "Sphinx>=7.3.7",
            "sphinx_rtd_theme",
        ],
        "package": [
            "twine",
            "wheel",
        ],
        "test": [
            "black>=24.4.2",
            "check-manifest>=0.49",
            "coverage>=7.5.3",
            "flake8>=7.0.0",
            "pydocstyle>=6.3.0",
            "pytest>=8.0",
            "readme_renderer",
            "isort>=5.13.2",
            "django-stubs>=4.2.4",
            "djangorestframework-stubs[compatible-mypy]>=3.15.0",
            "types-setuptools",
        ],
    },
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Environment :: Web Environment",
        "Framework :: Django",
        "Intended Audience :: Developers",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="morph serialization filtering django rest",
)
