from setuptools import setup, find_packages

setup(name='refire',
      version='0.0.1',
      description='Replayable continuation-passing actions, with failures as values and combinators for racing, fan-out and retry',
      classifiers=[
          "Programming Language :: Python :: 3",
          "License :: OSI Approved :: MIT License",
          "Framework :: Trio",
      ],
      keywords='continuation callback async concurrency trio',
      license='MIT',
      packages=find_packages(),
      python_requires='>=3.11',
      install_requires=[
          'outcome',
          'trio>=0.25',
      ],
      extras_require={
          'test': ['pytest'],
      },
)
