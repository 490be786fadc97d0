import setuptools

with open('requirements.txt') as f:
    install_requires = f.read().strip().split('\n')


setuptools.setup(name="trajflow",
                 version="0.1.0",
                 author="Rena Elkin",
                 description="Lineage inference and pseudotime from clustered, reduced-dimensional data",
                 install_requires=install_requires,
                 extras_require={'test': ['pytest']},
                 packages=setuptools.find_packages(exclude=['tests', 'tests.*']),
)
