import os

# ==============================================================================
# CONFIGURATION SETTINGS
# ==============================================================================

# Remote pricing engine
API_BASE = os.environ.get("PRICING_API_BASE", "http://localhost:8000")

# Request timeouts (seconds). Batch files can be large, so batch calls get longer.
SINGLE_TIMEOUT_SECONDS = float(os.environ.get("PRICING_SINGLE_TIMEOUT", "30"))
BATCH_TIMEOUT_SECONDS = float(os.environ.get("PRICING_BATCH_TIMEOUT", "120"))

# Structured recommendation log
LOG_FILE = os.environ.get("PRICING_LOG_FILE", "logs/recommendations.jsonl")

# ==============================================================================
# RIDE RECORD OPTIONS
# ==============================================================================
VEHICLE_TYPES = ["Economy", "Premium"]
TIME_SLOTS = ["Morning", "Afternoon", "Evening", "Night"]
LOCATION_CATEGORIES = ["Urban", "Suburban", "Rural"]
LOYALTY_STATUS = ["Regular", "Silver", "Gold"]

DEFAULT_RECORD = {
    "Historical_Cost_of_Ride": 250,
    "Expected_Ride_Duration": 35,
    "Number_of_Riders": 120,
    "Number_of_Drivers": 100,
    "Vehicle_Type": "Economy",
    "Time_of_Booking": "Evening",
    "Location_Category": "Urban",
    "Customer_Loyalty_Status": "Silver",
    "competitor_price": 360,
}

# ==============================================================================
# DISPLAY
# ==============================================================================

# Gross-margin tiers used by the results table
GM_HIGH_THRESHOLD = 20.0
GM_MEDIUM_THRESHOLD = 10.0

# KPI key surfaced on the dashboard when the server provides it
REVENUE_LIFT_KPI = "Revenue Lift (%)"
