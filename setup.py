import setuptools

with open("README.rst", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="bulkuploader",
    version="0.1.0",
    author="Jacob Williams",
    author_email="jacobaw@gmail.com",
    description="Uploads files and folders to a note service as notes with attachments.",
    long_description=long_description,
    long_description_content_type="text/x-rst",
    packages=setuptools.find_packages('src'),
    package_dir={'': 'src'},
    entry_points={
        'console_scripts': [
            'bulkuploader = bulkuploader.cli:main'
        ]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    install_requires=[
        'beautifulsoup4>=4.9.1',
        'lxml',
        'Mako>=1.1.3',
        'rich',
        'shortuuid',
        'terminaltables',
    ],
    extras_require={
        'evernote': [
            'evernote3',
        ],
        'test': [
            'freezegun',
            'pyfakefs',
            'pytest',
            'pytest-mock',
        ],
    },
    python_requires='>=3.8',
)
