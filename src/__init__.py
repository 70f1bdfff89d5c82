"""learner-insights: learner personalization and analytics aggregation core."""
