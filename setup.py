from setuptools import setup, find_packages

setup(
    name="py_tumor_scores",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    install_requires=[
        'numpy',
        'pandas',
        'scipy',
        'scanpy',
        'anndata',
        'scikit-misc',
        'torch',
        'tqdm'
    ],
    extras_require={
        'test': ['pytest'],
    },
    python_requires='>=3.8',
)
