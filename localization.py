class Translator:
    def __init__(self) -> None:
        self.language = "en"
        self.translations = {
            "en": {},
            "it": {
                "Plans": "Schede",
                "History": "Storico",
                "Body": "Corpo",
                "Goals": "Obiettivi",
                "Payments": "Pagamenti",
                "Settings": "Impostazioni",
                "Start Session": "Inizia Allenamento",
                "Finish": "Fine",
                "Weight": "Peso",
                "Reps": "Ripetizioni",
                "Done": "OK",
                "Rest in progress": "Recupero in corso",
                "Skip Rest": "Salta Recupero",
                "Rest over!": "Recupero finito!",
                "Workout Finished!": "Allenamento Finito!",
                "Total Volume": "Volume Totale",
                "Total Time": "Tempo Totale",
                "Save Session": "Salva Sessione",
                "Back to Workout": "Torna all'Allenamento",
                "Membership Active": "Abbonamento Attivo",
                "Membership Expired": "Abbonamento Scaduto",
            },
        }

    def set_language(self, lang: str) -> None:
        self.language = lang

    def gettext(self, key: str) -> str:
        return self.translations.get(self.language, {}).get(key, key)

translator = Translator()
