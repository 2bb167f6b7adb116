#!/usr/bin/env python3
"""
Discord bot token verification helper
"""
import os

import requests

API_BASE_URL = "https://discord.com/api/v10"

BOT_TOKEN = (
    os.environ.get("DISCORD_BOT_TOKEN")
    or input("Please paste your bot token from the Discord developer portal: ")
).strip()

print("\n🔍 Token Analysis:")
print(f"Length: {len(BOT_TOKEN)}")
print(f"Dot-separated parts: {len(BOT_TOKEN.split('.'))} (expected 3)")
print(f"Starts with 'Bot ': {BOT_TOKEN.startswith('Bot ')} (should be False)")

headers = {"Authorization": f"Bot {BOT_TOKEN}"}
try:
    response = requests.get(f"{API_BASE_URL}/users/@me", headers=headers, timeout=10)
    print(f"\n📡 API Response: {response.status_code}")

    if response.status_code == 200:
        bot_info = response.json()
        print("✅ SUCCESS! Bot details:")
        print(f"   • Username: {bot_info.get('username')}")
        print(f"   • ID: {bot_info.get('id')}")
        print(f"   • Bot account: {bot_info.get('bot', False)}")

        guilds = requests.get(
            f"{API_BASE_URL}/users/@me/guilds", headers=headers, timeout=10
        )
        if guilds.status_code == 200:
            print(f"\n🏠 Servers this bot has joined: {len(guilds.json())}")
            for guild in guilds.json():
                print(f"   • {guild.get('name')} (guild_id: {guild.get('id')})")
    elif response.status_code == 401:
        print("❌ Token rejected. Reset it in the developer portal and try again.")
    else:
        print(f"❌ HTTP Error: {response.text}")

except requests.exceptions.RequestException as e:
    print(f"❌ Network Error: {e}")
