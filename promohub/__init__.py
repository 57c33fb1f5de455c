"""PromoHub affiliate & influencer marketing backend."""
