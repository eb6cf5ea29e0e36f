from setuptools import setup, find_packages

setup(
    name="constraint-lib",
    version="0.1.0",
    description="Declarative constraint validation with a compact rule language and localized messages",
    author="Jude Payne",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={
        'constraint_lib': ['local-config.yaml', 'messages/*.yaml'],
    },
    include_package_data=True,
    install_requires=[
        'pyyaml>=6.0',
        'jsonschema>=4.17.0',
        'requests>=2.28.0',
        'jinja2>=3.1',
    ],
    extras_require={
        'test': ['pytest>=7.0'],
    },
    python_requires='>=3.10',
)
