from setuptools import setup


setup(
    name="clinic-sync",
    version="0.3.0",
    description="Convert clinic HTML report exports to CSV and merge them into the reporting spreadsheet",
    packages=["clinic_sync", "clinic_sync.stores"],
    include_package_data=True,
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "streamlit",
        "requests",
        "python-jose[cryptography]",
    ],
    extras_require={
        "test": ["cryptography"],
    },
    entry_points={
        "console_scripts": [
            "clinic-sync=clinic_sync.cli:main",
        ]
    },
)
