"""
Setup script for pricing_experiments package.
"""

from setuptools import setup, find_packages

setup(
    name="pricing-experiments",
    version="1.0.0",
    description="Moteur d'expérimentation de prix (propositions, application, restauration, analyse avant/après)",
    author="PricEye Team",
    packages=find_packages(include=["pricing_experiments", "pricing_experiments.*"]),
    install_requires=[
        "supabase>=2.0.0",
        "pandas>=2.0.0",
        "numpy>=1.24.0",
        "python-dotenv>=1.0.0",
        "pytz>=2023.3",
        "python-dateutil>=2.8.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    python_requires=">=3.9",
)
