import argparse

import pandas as pd
import numpy as np

from pricing_console.config import LOCATION_CATEGORIES, LOYALTY_STATUS, TIME_SLOTS, VEHICLE_TYPES

def generate_ride_records(num_samples=100, seed=None):
    """
    Generates synthetic ride records for a batch recommendation upload.
    Every row carries the nine fields the pricing engine expects.
    """
    rng = np.random.default_rng(seed)

    # 1. Context Features
    # ---------------------------------------------------------
    vehicle_type = rng.choice(VEHICLE_TYPES, size=num_samples, p=[0.7, 0.3])
    time_of_booking = rng.choice(TIME_SLOTS, size=num_samples)
    location = rng.choice(LOCATION_CATEGORIES, size=num_samples, p=[0.5, 0.3, 0.2])
    loyalty = rng.choice(LOYALTY_STATUS, size=num_samples, p=[0.5, 0.3, 0.2])

    # 2. Supply & Demand
    # ---------------------------------------------------------
    # Evenings and urban areas draw more riders
    base_riders = np.where(time_of_booking == "Evening", 90, 60)
    base_riders = base_riders + np.where(location == "Urban", 30, 0)
    riders = np.maximum(1, rng.normal(base_riders, 15)).astype(int)

    supply_ratio = rng.uniform(0.5, 1.3, size=num_samples)
    drivers = np.maximum(1, riders * supply_ratio).astype(int)

    # 3. Ride Cost
    # ---------------------------------------------------------
    duration = np.clip(rng.gamma(4.0, 20.0, size=num_samples), 5, 180).round()
    per_minute = np.where(vehicle_type == "Premium", 5.0, 3.5)
    historical_cost = (duration * per_minute * rng.uniform(0.9, 1.1, size=num_samples)).round(2)

    # Competitors price around our historical cost
    competitor_price = (historical_cost * rng.uniform(0.9, 1.5, size=num_samples)).round(2)

    # 4. Create DataFrame
    df = pd.DataFrame({
        'Historical_Cost_of_Ride': historical_cost,
        'Expected_Ride_Duration': duration,
        'Number_of_Riders': riders,
        'Number_of_Drivers': drivers,
        'Vehicle_Type': vehicle_type,
        'Time_of_Booking': time_of_booking,
        'Location_Category': location,
        'Customer_Loyalty_Status': loyalty,
        'competitor_price': competitor_price,
    })

    return df

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate a sample ride-record CSV for batch uploads.")
    parser.add_argument("--samples", type=int, default=100, help="Number of ride records to generate.")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible files.")
    parser.add_argument("--output", type=str, default="rides.csv", help="Where to write the CSV.")
    args = parser.parse_args()

    generate_ride_records(args.samples, args.seed).to_csv(args.output, index=False)
    print(f"✅ Wrote {args.samples} ride records to '{args.output}'")
