MESSAGE_FORMAT = "今日の体重: {weight:4.1f}kg (BMI: {bmi:4.2f} ) 体脂肪率: {fat:4.2f}% via Fitbit"


def format_message(reading):
    return MESSAGE_FORMAT.format(weight=reading.weight, bmi=reading.bmi, fat=reading.fat)
