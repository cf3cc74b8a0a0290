"""
Central configuration for the project.

This module centralizes environment-independent constants and derived paths
used throughout the codebase (data and model paths, dataset schema and
modelling defaults).

Constants
---------
BASE_DIR : str
    Absolute path to the project `car_prices` parent directory.
DATA_DIR, RAW_DATA_DIR, PROCESSED_DATA_DIR : str
    Paths to data folders.
RAW_DATA_FILE, CLEANED_FILE, COMPLETE_FILE : str
    Raw listings input, cleaned dataset (with nulls) and complete-case dataset.
MODELS_DIR, METADATA_FILE : str
    Paths to model artifacts and metadata.
COLUMNS : list
    Column order of every persisted dataset.
RAW_COLUMNS : dict
    Required raw header name -> dataset column it feeds.
"""

import os

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DATA_DIR = os.path.join(BASE_DIR, "data")
RAW_DATA_DIR = os.path.join(DATA_DIR, "raw")
PROCESSED_DATA_DIR = os.path.join(DATA_DIR, "processed")

RAW_DATA_FILE = os.path.join(RAW_DATA_DIR, "used_cars.csv")
CLEANED_FILE = os.path.join(PROCESSED_DATA_DIR, "used_cars_clean.csv")
COMPLETE_FILE = os.path.join(PROCESSED_DATA_DIR, "used_cars_complete.csv")

MODELS_DIR = os.path.join(BASE_DIR, "models")
METADATA_FILE = os.path.join(MODELS_DIR, "comparison.metadata.json")

COLUMNS = ["Brand", "Model", "Model_year", "Mileage", "Horsepower", "Accident", "Price"]
INTEGER_COLUMNS = ["Model_year", "Mileage", "Accident", "Price"]

# raw header -> dataset column; "milage" is how the listings export spells it
RAW_COLUMNS = {
    "brand": "Brand",
    "model": "Model",
    "model_year": "Model_year",
    "milage": "Mileage",
    "engine": "Horsepower",
    "accident": "Accident",
    "price": "Price",
}
RAW_ALIASES = {"mileage": "milage"}

TARGET = "Price"
FEATURES = ["Mileage", "Horsepower", "Accident", "Model_year"]
POLY_FEATURES = ["Mileage", "Horsepower"]
OUTLIER_COLUMNS = ["Price", "Mileage", "Horsepower"]

RANDOM_SEED = 42
Z_THRESHOLD = 3.0
N_SPLITS = 10
MAX_DEGREE = 5
N_BOOTSTRAP = 1000
CONFIDENCE = 0.95
N_TREES = 500
TREE_CP = 0.01
ACCIDENT_CASE_SENSITIVE = True
