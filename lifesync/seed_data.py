"""
seed_data.py - Reference records seeded by the admin-only initialize handlers.
"""

# Criteria types without a counter in analytics.CRITERIA_STATS (premium and
# community badges) are stored for display and never auto-awarded.
BADGE_DEFINITIONS = [
    # Streak
    {"name": "Week Warrior", "description": "Complete habits for 7 days straight", "category": "streak",
     "icon": "🔥", "color": "orange", "criteria": {"type": "streak", "threshold": 7},
     "points_reward": 50, "rarity": "common"},
    {"name": "Month Master", "description": "Maintain a 30-day streak", "category": "streak",
     "icon": "⚡", "color": "yellow", "criteria": {"type": "streak", "threshold": 30},
     "points_reward": 150, "rarity": "rare"},
    {"name": "Century Club", "description": "100-day streak achievement", "category": "streak",
     "icon": "💯", "color": "gold", "criteria": {"type": "streak", "threshold": 100},
     "points_reward": 500, "rarity": "epic"},
    {"name": "Legendary Streak", "description": "365 consecutive days", "category": "streak",
     "icon": "👑", "color": "purple", "criteria": {"type": "streak", "threshold": 365},
     "points_reward": 1000, "rarity": "legendary"},

    # Goals
    {"name": "Goal Getter", "description": "Complete your first goal", "category": "goal",
     "icon": "🎯", "color": "blue", "criteria": {"type": "goals_completed", "threshold": 1},
     "points_reward": 25, "rarity": "common"},
    {"name": "Achievement Hunter", "description": "Complete 5 goals", "category": "goal",
     "icon": "🏆", "color": "gold", "criteria": {"type": "goals_completed", "threshold": 5},
     "points_reward": 100, "rarity": "rare"},
    {"name": "Dream Chaser", "description": "Complete 10 goals", "category": "goal",
     "icon": "⭐", "color": "gold", "criteria": {"type": "goals_completed", "threshold": 10},
     "points_reward": 250, "rarity": "epic"},

    # Milestones
    {"name": "Journal Novice", "description": "Write 10 journal entries", "category": "milestone",
     "icon": "📝", "color": "green", "criteria": {"type": "journal_entries", "threshold": 10},
     "points_reward": 50, "rarity": "common"},
    {"name": "Reflective Soul", "description": "Write 50 journal entries", "category": "milestone",
     "icon": "📖", "color": "green", "criteria": {"type": "journal_entries", "threshold": 50},
     "points_reward": 150, "rarity": "rare"},
    {"name": "Zen Master", "description": "Complete 25 mindfulness sessions", "category": "milestone",
     "icon": "🧘", "color": "purple", "criteria": {"type": "mindfulness_sessions", "threshold": 25},
     "points_reward": 100, "rarity": "rare"},
    {"name": "Meditation Guru", "description": "Complete 100 mindfulness sessions", "category": "milestone",
     "icon": "🕉️", "color": "purple", "criteria": {"type": "mindfulness_sessions", "threshold": 100},
     "points_reward": 400, "rarity": "epic"},

    # Premium
    {"name": "Premium Pioneer", "description": "Complete 10 premium meditations", "category": "premium",
     "icon": "💎", "color": "cyan", "criteria": {"type": "premium_meditations", "threshold": 10},
     "points_reward": 200, "rarity": "epic", "is_premium": True},
    {"name": "Elite Achiever", "description": "Unlock all progress tree nodes", "category": "premium",
     "icon": "🌟", "color": "gold", "criteria": {"type": "progress_tree_complete"},
     "points_reward": 500, "rarity": "legendary", "is_premium": True},

    # Community
    {"name": "Supportive Friend", "description": "Send 10 encouragements", "category": "community",
     "icon": "💙", "color": "blue", "criteria": {"type": "encouragements_sent", "threshold": 10},
     "points_reward": 75, "rarity": "common"},
    {"name": "Community Champion", "description": "Complete a community challenge", "category": "community",
     "icon": "🤝", "color": "green", "criteria": {"type": "community_challenge_complete"},
     "points_reward": 150, "rarity": "rare"},
]


MEDITATION_ITEMS = [
    {
        "name": "Body Scan Meditation",
        "type": "meditation",
        "category": "body-scan",
        "duration": 15,
        "description": "Progressive relaxation through body awareness and gentle scanning",
        "instructions": "1. Lie down comfortably on your back\n2. Close your eyes and take 3 deep breaths\n"
                        "3. Starting at your toes, mentally scan each body part\n4. Notice sensations without judgment\n"
                        "5. Slowly work your way up to the crown of your head\n6. End with deep gratitude for your body",
        "benefits": ["stress-reduction", "sleep", "emotional-balance"],
        "when_to_use": "Evening or before bed",
        "difficulty": "beginner",
    },
    {
        "name": "Loving-Kindness Meditation",
        "type": "meditation",
        "category": "loving-kindness",
        "duration": 10,
        "description": "Cultivate compassion for yourself and others",
        "instructions": "1. Sit comfortably with hand on heart\n"
                        "2. Silently repeat: \"May I be happy, may I be healthy, may I be safe, may I be at ease\"\n"
                        "3. Extend these wishes to a loved one\n4. Then to a neutral person\n"
                        "5. To someone difficult\n6. Finally to all beings",
        "benefits": ["emotional-balance", "focus", "anxiety"],
        "when_to_use": "Morning or when feeling disconnected",
        "difficulty": "intermediate",
    },
    {
        "name": "Mindful Breathing",
        "type": "meditation",
        "category": "mindful-breathing",
        "duration": 5,
        "description": "Simple breath awareness for quick stress relief",
        "instructions": "1. Sit comfortably upright\n2. Let your eyes gently close or soften gaze\n"
                        "3. Focus on the sensation of natural breathing\n4. Notice cool air entering, warm air leaving\n"
                        "5. When mind wanders, gently return focus\n6. Practice for entire duration",
        "benefits": ["stress-reduction", "focus", "clarity"],
        "when_to_use": "Anytime, especially during stress",
        "difficulty": "beginner",
    },
    {
        "name": "Box Breathing",
        "type": "breathing",
        "category": "box-breathing",
        "duration": 5,
        "description": "Balanced breathing pattern: inhale 4, hold 4, exhale 4, hold 4",
        "instructions": "1. Sit comfortably\n2. Breathe in through nose for count of 4\n3. Hold breath for count of 4\n"
                        "4. Exhale through mouth for count of 4\n5. Hold empty for count of 4\n6. Repeat 5-10 times",
        "benefits": ["stress-reduction", "focus", "anxiety"],
        "when_to_use": "Before important meetings or stressful moments",
        "difficulty": "beginner",
    },
    {
        "name": "4-7-8 Breathing",
        "type": "breathing",
        "category": "box-breathing",
        "duration": 5,
        "description": "Extended exhale breathing for relaxation and sleep preparation",
        "instructions": "1. Sit or lie comfortably\n2. Inhale through nose for count of 4\n3. Hold breath for count of 7\n"
                        "4. Exhale through mouth for count of 8\n5. Pause and repeat\n6. Continue for 4-8 cycles",
        "benefits": ["sleep", "anxiety", "emotional-balance"],
        "when_to_use": "Before bed or when anxious",
        "difficulty": "beginner",
    },
    {
        "name": "Energizing Breath",
        "type": "breathing",
        "category": "energizing",
        "duration": 3,
        "description": "Quick, rhythmic breathing to boost energy and alertness",
        "instructions": "1. Sit upright with good posture\n2. Take quick, shallow breaths through nose\n"
                        "3. Around 3 breaths per second\n4. Maintain rhythmic pace\n5. Continue for 1-2 minutes\n"
                        "6. Gradually slow down",
        "benefits": ["energy", "focus", "clarity"],
        "when_to_use": "Morning or midday energy slump",
        "difficulty": "intermediate",
    },
    {
        "name": "Rain Soundscape",
        "type": "soundscape",
        "category": "nature",
        "duration": 20,
        "description": "Gentle rainfall for deep relaxation and meditation",
        "benefits": ["sleep", "stress-reduction", "emotional-balance"],
        "when_to_use": "Sleep or deep focus",
        "difficulty": "beginner",
    },
    {
        "name": "Ocean Waves",
        "type": "soundscape",
        "category": "nature",
        "duration": 20,
        "description": "Rhythmic waves for calming and centering",
        "benefits": ["anxiety", "stress-reduction", "focus"],
        "when_to_use": "Meditation or relaxation",
        "difficulty": "beginner",
    },
    {
        "name": "Forest Ambience",
        "type": "soundscape",
        "category": "nature",
        "duration": 30,
        "description": "Birds and nature sounds for clarity and connection",
        "benefits": ["focus", "clarity", "stress-reduction"],
        "when_to_use": "Work or creative tasks",
        "difficulty": "beginner",
    },
    {
        "name": "Cafe Ambience",
        "type": "soundscape",
        "category": "ambient",
        "duration": 25,
        "description": "Cozy coffee shop atmosphere for productivity",
        "benefits": ["focus", "productivity", "clarity"],
        "when_to_use": "Work or study sessions",
        "difficulty": "beginner",
    },
]
